import logging

from notify_scheduler.db import Base, SessionLocal, engine
from notify_scheduler.services.settings_service import seed_default_settings


logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s %(message)s')
logger = logging.getLogger('bootstrap')


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        created = seed_default_settings(db)
        if created:
            logger.info('Bootstrap seeded settings: %s', created)
        else:
            logger.info('Bootstrap skipped: settings already present')
    finally:
        db.close()


if __name__ == '__main__':
    main()
