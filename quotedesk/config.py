import os

class BaseConfig:
    SECRET_KEY = os.getenv('SECRET_KEY', 'change-me')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///quotedesk.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    QUOTATIONS_PER_PAGE = int(os.getenv('QUOTATIONS_PER_PAGE', '15'))
    QUOTATION_TAX_RATE = float(os.getenv('QUOTATION_TAX_RATE', '0.08'))
    QUOTATION_VALIDITY_DAYS = int(os.getenv('QUOTATION_VALIDITY_DAYS', '30'))

    # PDF endpoints: at most PDF_RATE_LIMIT requests per client per window
    PDF_RATE_LIMIT = int(os.getenv('PDF_RATE_LIMIT', '100'))
    PDF_RATE_WINDOW = int(os.getenv('PDF_RATE_WINDOW', '900'))

    COMPANY_NAME = os.getenv('COMPANY_NAME', 'WIF Japan Sdn Bhd')
    COMPANY_ADDRESS = os.getenv('COMPANY_ADDRESS', 'No 6, Lorong Kiri 10')
    COMPANY_CITY = os.getenv('COMPANY_CITY', 'Kampung Datuk Keramat')
    COMPANY_STATE = os.getenv('COMPANY_STATE', 'Kuala Lumpur')
    COMPANY_POSTAL_CODE = os.getenv('COMPANY_POSTAL_CODE', '54000')
    COMPANY_COUNTRY = os.getenv('COMPANY_COUNTRY', 'Malaysia')
    COMPANY_EMAIL = os.getenv('COMPANY_EMAIL', 'admin@wiftravel.com')

class DevConfig(BaseConfig):
    DEBUG = True
    ENV = 'development'

class ProdConfig(BaseConfig):
    DEBUG = False
    ENV = 'production'

class TestConfig(BaseConfig):
    TESTING = True
    ENV = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    PDF_RATE_LIMIT = 1000


CONFIGS = {
    'development': DevConfig,
    'production': ProdConfig,
    'testing': TestConfig,
}
