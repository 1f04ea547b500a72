"""Application settings read from the environment."""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from app.utils.s3 import get_temp_path

DEFAULT_DB_KEY = 'budget.db'


@dataclass(frozen=True)
class Settings:
    """Explicit configuration handed to the store and auth collaborators.

    An empty data_bucket keeps the database local (no S3 sync).
    """
    data_bucket: str = ''
    db_key: str = DEFAULT_DB_KEY
    db_path: str = ''
    jwt_secret: str = ''
    owner_password_hash: str = ''
    viewer_password_hash: str = ''

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        """Build settings from environment variables.

        Args:
            environ: Mapping to read instead of os.environ

        Returns:
            Settings
        """
        env = os.environ if environ is None else environ
        db_key = env.get('DB_KEY', DEFAULT_DB_KEY) or DEFAULT_DB_KEY
        return cls(
            data_bucket=env.get('DATA_BUCKET', ''),
            db_key=db_key,
            db_path=env.get('DB_PATH', '') or get_temp_path(db_key),
            jwt_secret=env.get('JWT_SECRET', ''),
            owner_password_hash=env.get('OWNER_PASSWORD_HASH', ''),
            viewer_password_hash=env.get('VIEWER_PASSWORD_HASH', '')
        )
