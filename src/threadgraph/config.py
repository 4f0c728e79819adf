"""
Storage Configuration

Connection settings for the Neo4j-backed conversation memory store.

Only the four connection parameters are read from the environment; driver
pool tuning is set on ``Neo4jStorageConfig`` by the embedding application.
"""

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_DATABASE = "neo4j"


class Neo4jStorageConfig(BaseModel):
    """Connection parameters for ``Neo4jStorage``."""

    uri: str = Field(..., description="Neo4j Bolt protocol URI")
    username: str = Field(..., description="Neo4j username")
    password: str = Field(..., description="Neo4j password")
    database: str = Field(
        default=DEFAULT_DATABASE, description="Neo4j database name"
    )

    # Driver pool tuning (not part of the environment contract)
    max_connection_lifetime: int = Field(
        default=3600, gt=0, description="Neo4j connection lifetime in seconds"
    )
    max_connection_pool_size: int = Field(
        default=50, ge=1, description="Maximum Neo4j connection pool size"
    )
    connection_acquisition_timeout: int = Field(
        default=60, gt=0, description="Neo4j connection acquisition timeout in seconds"
    )

    @field_validator("database", mode="before")
    @classmethod
    def default_database(cls, v: str | None) -> str:
        """Fall back to the standard database name for unset values."""
        return v or DEFAULT_DATABASE


class Settings(BaseSettings):
    """Connection settings loaded from environment variables."""

    NEO4J_URI: str = Field(
        default="bolt://localhost:7687", description="Neo4j Bolt protocol URI"
    )
    NEO4J_USERNAME: str = Field(default="neo4j", description="Neo4j username")
    NEO4J_PASSWORD: str = Field(default="password", description="Neo4j password")
    NEO4J_DATABASE: str = Field(
        default=DEFAULT_DATABASE, description="Neo4j database name"
    )

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
        "extra": "ignore",
    }

    def to_storage_config(self) -> Neo4jStorageConfig:
        """Build a storage config from the loaded settings."""
        return Neo4jStorageConfig(
            uri=self.NEO4J_URI,
            username=self.NEO4J_USERNAME,
            password=self.NEO4J_PASSWORD,
            database=self.NEO4J_DATABASE,
        )
