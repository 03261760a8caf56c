import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from dotenv import load_dotenv

KEY_DIR = os.path.join(os.path.dirname(__file__), "..", "keys")


@dataclass
class Settings:
    database_url: str = "sqlite:///./dev.db"
    create_tables: bool = True
    jwt_algorithm: str = "RS256"
    private_key: Optional[bytes] = None
    public_key: Optional[bytes] = None
    private_key_path: str = os.path.join(KEY_DIR, "private.pem")
    public_key_path: str = os.path.join(KEY_DIR, "public.pem")
    token_expires: timedelta = timedelta(hours=24)
    bcrypt_rounds: int = 10
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from the process environment (and a .env file if present).
        PRIVATE_KEY / PUBLIC_KEY hold PEM text and win over the *_PATH variables.
        """
        load_dotenv()
        priv = os.environ.get("PRIVATE_KEY")
        pub = os.environ.get("PUBLIC_KEY")
        return cls(
            database_url=os.environ.get("DATABASE_URL", cls.database_url),
            create_tables=os.environ.get("CREATE_TABLES", "true").lower() == "true",
            jwt_algorithm=os.environ.get("JWT_ALGORITHM", cls.jwt_algorithm),
            private_key=priv.encode() if priv else None,
            public_key=pub.encode() if pub else None,
            private_key_path=os.environ.get("PRIVATE_KEY_PATH", cls.private_key_path),
            public_key_path=os.environ.get("PUBLIC_KEY_PATH", cls.public_key_path),
            token_expires=timedelta(hours=int(os.environ.get("TOKEN_EXPIRES_HOURS", 24))),
            bcrypt_rounds=int(os.environ.get("BCRYPT_ROUNDS", cls.bcrypt_rounds)),
            log_level=os.environ.get("LOG_LEVEL", cls.log_level).upper(),
            host=os.environ.get("HOST", cls.host),
            port=int(os.environ.get("PORT", cls.port)),
        )
