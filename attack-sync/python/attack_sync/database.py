"""
Database connection and session management for the ATT&CK sync pipeline
"""

import os
import json
import logging
from contextlib import contextmanager
from typing import Generator, Optional, Dict, Any

import boto3
from botocore.exceptions import ClientError, BotoCoreError
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import NullPool

from .models import Base

# Configure logging
logger = logging.getLogger(__name__)

class DatabaseManager:
    """Lazily configured database manager shared by the Lambda and the CLI"""
    
    _instance: Optional['DatabaseManager'] = None
    _engine: Optional[Engine] = None
    _session_factory: Optional[sessionmaker] = None
    _cached_secret: Optional[Dict[str, Any]] = None
    
    def __new__(cls) -> 'DatabaseManager':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance
    
    def _get_secret_from_arn(self, secret_arn: str) -> Dict[str, Any]:
        """Retrieve database credentials from AWS Secrets Manager"""
        
        # Return cached secret if available (for Lambda container reuse)
        if self._cached_secret is not None:
            return self._cached_secret
        
        try:
            session = boto3.session.Session()
            client = session.client('secretsmanager')
            response = client.get_secret_value(SecretId=secret_arn)
            secret_dict = json.loads(response['SecretString'])
            
            self._cached_secret = secret_dict
            
            logger.info(f"Successfully retrieved secret from ARN: {secret_arn}")
            return secret_dict
            
        except ClientError as e:
            error_code = e.response['Error']['Code']
            if error_code == 'ResourceNotFoundException':
                logger.error(f"Secret not found: {secret_arn}")
            elif error_code == 'DecryptionFailureException':
                logger.error("Secrets Manager can't decrypt the protected secret text using the provided KMS key")
            else:
                logger.error(f"Unexpected error retrieving secret: {e}")
            raise
        except (BotoCoreError, json.JSONDecodeError) as e:
            logger.error(f"Error retrieving or parsing secret from {secret_arn}: {e}")
            raise
    
    def _get_database_url(self) -> str:
        """Construct database URL from DATABASE_URL or the DB_* variables and Secrets Manager"""
        database_url = os.getenv('DATABASE_URL')
        if database_url:
            return database_url
        
        db_host = os.getenv('DB_HOST', 'localhost')
        db_port = os.getenv('DB_PORT', '5432')
        db_name = os.getenv('DB_NAME', 'attack')
        db_user = os.getenv('DB_USER', 'postgres')
        
        db_secret_arn = os.getenv('DB_SECRET_ARN')
        
        if db_secret_arn:
            secret_dict = self._get_secret_from_arn(db_secret_arn)
            
            # Try different common key names for the password in the secret
            db_password = (
                secret_dict.get('password') or 
                secret_dict.get('Password') or 
                secret_dict.get('db_password') or 
                secret_dict.get('DB_PASSWORD')
            )
            
            if not db_password:
                available_keys = list(secret_dict.keys())
                logger.error(f"Password not found in secret. Available keys: {available_keys}")
                raise ValueError("Password key not found in secret")
            
            # Override other connection parameters if present in secret
            db_host = secret_dict.get('host', db_host)
            db_port = secret_dict.get('port', db_port)
            db_name = secret_dict.get('dbname', secret_dict.get('database', db_name))
            db_user = secret_dict.get('username', secret_dict.get('user', db_user))
            
            logger.info("Using database credentials from Secrets Manager")
        else:
            db_password = os.getenv('DB_PASSWORD', '')
            logger.warning("DB_SECRET_ARN not set, falling back to DB_PASSWORD environment variable")
        
        return f"postgresql://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"
    
    def configure(self, database_url: Optional[str] = None) -> None:
        """(Re)initialize the engine, optionally against an explicit URL"""
        database_url = database_url or self._get_database_url()
        engine_kwargs: Dict[str, Any] = {
            'echo': os.getenv('DB_ECHO', 'false').lower() == 'true',
        }
        if database_url.startswith('postgresql'):
            # One sync per invocation - no connection pooling
            engine_kwargs['poolclass'] = NullPool
            engine_kwargs['connect_args'] = {
                "connect_timeout": 30,
                "application_name": "attack-sync"
            }
        
        self._engine = create_engine(database_url, **engine_kwargs)
        self._session_factory = sessionmaker(
            bind=self._engine,
            autoflush=False,
            autocommit=False
        )
    
    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self.configure()
        return self._engine
    
    def create_tables(self) -> None:
        """Create any missing ATT&CK tables on the configured database"""
        Base.metadata.create_all(self.engine)
        logger.info("ATT&CK tables are in place")
    
    def get_session(self) -> Session:
        """Get a new database session"""
        if self._session_factory is None:
            self.configure()
        return self._session_factory()
    
    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Provide a transactional scope around a series of operations"""
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

# Global database manager instance
db_manager = DatabaseManager()

@contextmanager
def db_session() -> Generator[Session, None, None]:
    """Context manager for database sessions"""
    with db_manager.session_scope() as session:
        yield session
