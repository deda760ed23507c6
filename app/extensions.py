"""
Flask extensions initialization.

The database holds referral configurations and the accrual ledger;
the reward engine itself never touches it.
"""
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()

migrate = Migrate()
