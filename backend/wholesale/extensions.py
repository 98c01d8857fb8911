# Overview: Flask extension instances for the wholesale database and its migrations.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()

# SQLite cannot ALTER constraints in place; revisions use batch_alter_table
migrate = Migrate(render_as_batch=True, compare_type=True)
