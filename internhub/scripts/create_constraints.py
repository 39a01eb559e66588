from internhub.core.database import db
from internhub.services.store import LABELS
import logging
import sys
from neo4j.exceptions import Neo4jError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def constraint_queries():
    queries = [
        f"CREATE CONSTRAINT {label.lower()}_id_unique IF NOT EXISTS FOR (n:{label}) REQUIRE n.id IS UNIQUE"
        for label in LABELS.values()
    ]
    queries += [
        # One academic record per user, one issued student id per student
        "CREATE CONSTRAINT studentprofile_user_unique IF NOT EXISTS FOR (s:StudentProfile) REQUIRE s.user_id IS UNIQUE",
        "CREATE CONSTRAINT studentprofile_sid_unique IF NOT EXISTS FOR (s:StudentProfile) REQUIRE s.student_id IS UNIQUE",
        "CREATE CONSTRAINT sequence_name_unique IF NOT EXISTS FOR (s:Sequence) REQUIRE s.name IS UNIQUE",
        "CREATE INDEX userrole_user_index IF NOT EXISTS FOR (r:UserRole) ON (r.user_id)",
        "CREATE INDEX member_project_index IF NOT EXISTS FOR (m:ProjectMember) ON (m.project_id)",
        "CREATE INDEX leave_user_index IF NOT EXISTS FOR (l:LeaveRequest) ON (l.user_id)",
        "CREATE INDEX diary_user_index IF NOT EXISTS FOR (d:DiaryEntry) ON (d.user_id)",
    ]
    return queries


def create_constraints():
    """
    Runs the initial schema setup for InternHub.
    Applies uniqueness constraints and lookup indexes.
    """
    session = None
    logger.info("Starting database schema setup...")

    try:
        session = db.get_session()

        for q in constraint_queries():
            try:
                session.run(q)
                logger.info(f"Applied: {q[:70]}...")
            except Neo4jError:
                logger.exception(f"Neo4j error while running query: {q}")
                raise

        logger.info("Database schema setup completed")

    finally:
        if session is not None:
            session.close()


if __name__ == "__main__":
    try:
        db.connect()
        create_constraints()
    except Exception:
        logger.exception("Database schema setup failed. Aborting.")
        sys.exit(1)
    finally:
        db.close()
