# config.py

import os
from dotenv import load_dotenv

# Get the base directory of the application
basedir = os.path.abspath(os.path.dirname(__file__))

# This line finds the .env file in your root directory and loads it.
load_dotenv(os.path.join(basedir, '..', '.env'))
# --------------------------------------

class Config:
    """
    Contains all the configuration variables for the application,
    including database settings and the commission settlement defaults.
    """
    # --- Database Settings ---
    # Reads the database URL from the .env file.
    # Provides a default (e.g., for SQLite) if the variable isn't set.
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'app.db')

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # --- Secret Key ---
    SECRET_KEY = os.environ.get('SECRET_KEY')

    # --- Email Settings ---
    # Configuration for sending emails via Outlook/Microsoft 365 SMTP
    MAIL_SERVER = os.environ.get('MAIL_SERVER') or 'smtp.office365.com'
    MAIL_PORT = int(os.environ.get('MAIL_PORT') or 587)
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    # Finance inbox that receives the settlement review notices
    MAIL_DEFAULT_RECIPIENT = os.environ.get('MAIL_DEFAULT_RECIPIENT')

    # --- CORS ---
    CORS_ORIGINS = [
        origin.strip()
        for origin in (os.environ.get('CORS_ORIGINS') or 'http://localhost:3000,http://127.0.0.1:3000').split(',')
        if origin.strip()
    ]

    # --- COMMISSION VARIABLES CONFIGURATION ---
    # Registry of the numeric business parameters stored in the
    # commission_variable table. The latest recorded value wins; 'default' is
    # used when no value was ever recorded. A None default means the operator
    # must record a value before the cuts that use it can run.
    COMMISSION_VARIABLES = {
        'pagoCorte1Fraccion': {'category': 'PAGOS', 'default': None},
        'churnUmbralCorte2': {'category': 'PENALIDADES', 'default': 4.5},
        'churnUmbralCorte3': {'category': 'PENALIDADES', 'default': 3.5},
        'churnUmbralCorte4': {'category': 'PENALIDADES', 'default': 3.5},
        'clawbackUmbralCorte2': {'category': 'CLAWBACKS', 'default': None},
        'clawbackUmbralCorte3': {'category': 'CLAWBACKS', 'default': None},
        'clawbackUmbralCorte4': {'category': 'CLAWBACKS', 'default': None},
        'bonoArpuMonto': {'category': 'MULTIPLICADORES', 'default': 1.0},
        'multiplicadorMarchaBlanca': {'category': 'MULTIPLICADORES', 'default': 2.5},
        'multiplicadorDefault': {'category': 'MULTIPLICADORES', 'default': 1.3},
    }

    # --- Settlement Settings ---
    ZONAS = ('LIMA', 'PROVINCIA')
    # LIMA only settles sales sold through this channel
    LIMA_CANAL = 'Agencias'
    # Gross prices include 18% IGV
    IGV_FACTOR = '1.18'
    # Months after the period start at which each cut is evaluated
    CORTE_AS_OF_MONTH_OFFSET = {1: 1, 2: 2, 3: 3, 4: 4}
    # Sale records pulled per round-trip while streaming a period
    SALES_FETCH_BATCH_SIZE = 5000
    # Rows returned by the 'base de calculo' preview
    BASE_CALCULO_SAMPLE_LIMIT = 100


class TestConfig(Config):
    """Configuration used by the pytest suite (in-memory SQLite, no mail)."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    MAIL_USERNAME = None
    MAIL_PASSWORD = None
    MAIL_DEFAULT_RECIPIENT = None
