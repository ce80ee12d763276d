"""Read access to Terraform state kept by the PostgreSQL (pg) backend."""

import json
import logging
import os
from typing import Any, Dict, Optional, Set

import psycopg2
from psycopg2 import sql
from psycopg2.pool import ThreadedConnectionPool

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA = "terraform_remote_state"


def build_connection_string() -> str:
    """Build a libpq connection string from POSTGRES_* environment variables."""
    db_host = os.getenv("POSTGRES_HOST", "localhost")
    db_port = os.getenv("POSTGRES_PORT", "5432")
    db_name = os.getenv("POSTGRES_DB", "terraform_backend")
    db_user = os.getenv("POSTGRES_USER", "postgres")
    db_password = os.getenv("POSTGRES_PASSWORD", "postgres")

    return (
        f"host={db_host} port={db_port} dbname={db_name} "
        f"user={db_user} password={db_password}"
    )


def build_backend_connection_string() -> str:
    """
    Connection string for the pg backend block.

    The password is left out of the synthesized configuration; Terraform
    reads it from PGPASSWORD at runtime.
    """
    db_host = os.getenv("POSTGRES_HOST", "localhost")
    db_port = os.getenv("POSTGRES_PORT", "5432")
    db_name = os.getenv("POSTGRES_DB", "terraform_backend")
    db_user = os.getenv("POSTGRES_USER", "postgres")

    return f"host={db_host} port={db_port} dbname={db_name} user={db_user}"


class TerraformStateRepository:
    """Repository for reading workspace states written by the pg backend."""

    def __init__(self, connection_string: Optional[str] = None, schema_name: str = DEFAULT_SCHEMA):
        """
        Initialize state repository.

        Args:
            connection_string: PostgreSQL connection string. If None, uses env vars.
            schema_name: Schema the pg backend was configured with
        """
        if connection_string is None:
            connection_string = build_connection_string()

        self.connection_string = connection_string
        self.schema_name = schema_name
        self.pool: Optional[ThreadedConnectionPool] = None

    def connect(self):
        """Initialize connection pool."""
        try:
            self.pool = ThreadedConnectionPool(1, 2, self.connection_string)
            logger.info("Database connection pool created")
        except psycopg2.Error as e:
            logger.error(f"Error creating connection pool: {e}")
            raise

    def close(self):
        """Close connection pool."""
        if self.pool:
            self.pool.closeall()
            self.pool = None
            logger.info("Database connection pool closed")

    def _get_connection(self):
        if not self.pool:
            self.connect()
        return self.pool.getconn()

    def _return_connection(self, conn):
        if self.pool:
            self.pool.putconn(conn)

    def get_state(self, workspace: str = "default") -> Optional[Dict[str, Any]]:
        """
        Load the state document of a workspace.

        Args:
            workspace: Terraform workspace name

        Returns:
            Decoded state, or None when the workspace has no state yet
        """
        conn = self._get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(
                    sql.SQL("SELECT data FROM {}.states WHERE name = %s").format(
                        sql.Identifier(self.schema_name)
                    ),
                    (workspace,),
                )
                row = cur.fetchone()
        except psycopg2.Error as e:
            logger.error(f"Error reading state for workspace {workspace}: {e}")
            raise
        finally:
            self._return_connection(conn)

        if row is None:
            logger.info(f"No state stored for workspace {workspace}")
            return None
        return json.loads(row[0])

    def get_resource_addresses(self, workspace: str = "default") -> Set[str]:
        """Return the addresses (``type.name``, ``data.type.name``) tracked in state."""
        state = self.get_state(workspace)
        if not state:
            return set()

        addresses = set()
        for resource in state.get("resources", []):
            if resource.get("module"):
                continue
            address = f"{resource['type']}.{resource['name']}"
            if resource.get("mode") == "data":
                address = f"data.{address}"
            addresses.add(address)

        logger.info(f"Found {len(addresses)} addresses in workspace {workspace}")
        return addresses
