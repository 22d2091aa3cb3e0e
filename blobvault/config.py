import os


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Base configuration"""

    # Source and destination
    SOURCE_PATH = os.environ.get('BACKUP_SOURCE_PATH')
    CONTAINER_NAME = os.environ.get('BACKUP_CONTAINER_NAME') or 'backups'

    # Storage provider: 'azure', 's3' or 'local'
    STORAGE_PROVIDER = os.environ.get('STORAGE_PROVIDER') or 'azure'
    AZURE_STORAGE_CONNECTION_STRING = os.environ.get('AZURE_STORAGE_CONNECTION_STRING')
    AWS_ACCESS_KEY_ID = os.environ.get('AWS_ACCESS_KEY_ID')
    AWS_SECRET_ACCESS_KEY = os.environ.get('AWS_SECRET_ACCESS_KEY')
    AWS_REGION = os.environ.get('AWS_REGION') or 'us-east-1'
    LOCAL_STORAGE_DIR = os.environ.get('LOCAL_STORAGE_DIR') or os.path.join('data', 'storage')

    # Encryption (base64). No IV means a fresh random IV per run, stored in the artifact.
    AES_KEY = os.environ.get('BACKUP_AES_KEY')
    AES_IV = os.environ.get('BACKUP_AES_IV')

    # Artifact
    ARTIFACT_DIR = os.environ.get('ARTIFACT_DIR') or os.getcwd()
    ARTIFACT_SUFFIX = os.environ.get('ARTIFACT_SUFFIX') or '_encrypted.zip'
    KEEP_ARTIFACT = _env_bool('KEEP_ARTIFACT', True)

    # Scheduler (daily at 2 AM)
    SCHEDULE_CRON = os.environ.get('SCHEDULE_CRON') or '0 2 * * *'
    SCHEDULER_TIMEZONE = os.environ.get('SCHEDULER_TIMEZONE') or 'UTC'

    # Logging
    LOG_DIR = os.environ.get('LOG_DIR') or os.path.join('data', 'logs')
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    DEBUG = False


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'DEBUG'

    # Keep everything under the project data directory
    BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    DATA_DIR = os.path.join(BASE_DIR, 'data')
    STORAGE_PROVIDER = os.environ.get('STORAGE_PROVIDER') or 'local'
    LOCAL_STORAGE_DIR = os.path.join(DATA_DIR, 'storage')
    ARTIFACT_DIR = os.path.join(DATA_DIR, 'artifacts')
    LOG_DIR = os.path.join(DATA_DIR, 'logs')


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False


class TestingConfig(Config):
    """Testing configuration - never touches a real cloud account"""
    TESTING = True
    STORAGE_PROVIDER = 'local'
    AES_IV = None


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': ProductionConfig
}


def get_config(config_name=None):
    """
    Resolve a configuration class by name.

    Args:
        config_name: Key into ``config``; falls back to BLOBVAULT_ENV, then 'default'

    Returns:
        Configuration class

    Raises:
        ValueError: If the name is unknown
    """
    if config_name is None:
        config_name = os.environ.get('BLOBVAULT_ENV', 'default')

    if config_name not in config:
        raise ValueError(
            f"Unknown configuration: {config_name}. "
            f"Valid options: {list(config.keys())}"
        )

    return config[config_name]


def storage_settings(cfg, provider=None) -> dict:
    """
    Build keyword arguments for create_storage() from a config class.

    Args:
        cfg: Configuration class or instance
        provider: Provider name; defaults to cfg.STORAGE_PROVIDER

    Returns:
        Dict of provider settings (credentials, region, base path)
    """
    provider = provider or cfg.STORAGE_PROVIDER

    if provider == 'azure':
        return {'connection_string': cfg.AZURE_STORAGE_CONNECTION_STRING}
    if provider == 's3':
        return {
            'access_key': cfg.AWS_ACCESS_KEY_ID,
            'secret_key': cfg.AWS_SECRET_ACCESS_KEY,
            'region': cfg.AWS_REGION
        }
    if provider == 'local':
        return {'base_path': cfg.LOCAL_STORAGE_DIR}

    return {}
