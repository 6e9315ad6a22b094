"""
Configuration settings for MCPFlow.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""
    
    # Application
    APP_NAME: str = "MCPFlow"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    
    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    
    # MCP gateway
    MCP_GATEWAY_URL: str = "https://mcp-gateway.example.com"
    MCP_GATEWAY_TIMEOUT: float = 30.0  # Seconds
    
    # Output sinks
    WEBHOOK_TIMEOUT: float = 10.0  # Seconds
    
    # Workflow Engine
    NODE_TIMEOUT_MS: int = 30000  # Applied when a node sets no timeout
    
    # Logging
    LOG_LEVEL: str = "INFO"
    
    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
