import sys
import os
import getpass
import logging
from dotenv import load_dotenv

load_dotenv()

# Add the parent directory to sys.path to allow imports from backend
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import Base, SessionLocal, engine, transaction
from models.users import User, UserRole
from utils.auth_utils import hash_password

# Setup logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger("create_admin")


def create_admin(username: str, password: str, email: str = None):
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        if db.query(User).filter(User.username == username).first():
            logger.info(f"User '{username}' already exists, nothing to do")
            return
        with transaction(db):
            db.add(User(
                username=username,
                email=email,
                full_name="System Administrator",
                hashed_password=hash_password(password),
                role=UserRole.ADMIN,
            ))
        logger.info(f"Admin user '{username}' created")
    finally:
        db.close()


if __name__ == "__main__":
    admin_username = os.getenv("ADMIN_USERNAME", "admin")
    admin_password = os.getenv("ADMIN_PASSWORD") or getpass.getpass(f"Password for '{admin_username}': ")
    create_admin(admin_username, admin_password, os.getenv("ADMIN_EMAIL"))
