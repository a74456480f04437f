"""
Infrastructure layer.

- sql: connection strings, ODBC connections and SQL templates
- deploy: Schema Deployment Engine
- providers: database providers (SQL Server, LocalDB management)
- config_loader: JSON configuration loading
- logging_config: logging setup
"""
