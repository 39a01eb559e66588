import logging

from neo4j import GraphDatabase
from neo4j.exceptions import DriverError, Neo4jError
from internhub.core.config import settings

logger = logging.getLogger(__name__)

class Neo4jDriver:
    def __init__(self):
        self._driver = None

    def connect(self):
        if self._driver is not None:
            return  # already connected

        try:
            self._driver = GraphDatabase.driver(
                settings.NEO4J_URI,
                auth=(settings.NEO4J_USER, settings.NEO4J_PASSWORD),
                max_connection_lifetime=200,
                keep_alive=True
            )
            self._driver.verify_connectivity()
            logger.info("Connected to Neo4j at %s", settings.NEO4J_URI)
        except (Neo4jError, DriverError):
            self._driver = None
            # Not raised: get_session retries the connection on demand
            logger.exception("Failed to connect to Neo4j")

    def close(self):
        if self._driver:
            self._driver.close()
            self._driver = None
            logger.info("Disconnected from Neo4j")

    def get_session(self):
        if self._driver is None:
            logger.warning("Driver not found, attempting reconnect...")
            self.connect()

        if self._driver is None:
            raise RuntimeError("Database driver is unavailable.")

        return self._driver.session()

db = Neo4jDriver()
