# deps/security.py
from passlib.context import CryptContext

# pbkdf2 keeps hashing pure-python (no bcrypt backend needed on the stations)
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

def get_password_hash(plain: str) -> str:
    return pwd_context.hash(plain)

def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)
