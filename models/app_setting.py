import json
from datetime import datetime
from models.db import db

class AppSetting(db.Model):
    __tablename__ = "app_settings"

    key = db.Column(db.String(80), primary_key=True)
    value_json = db.Column(db.Text, nullable=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def value(self):
        return json.loads(self.value_json) if self.value_json else None

    @classmethod
    def get_value(cls, key, default=None):
        row = db.session.get(cls, key)
        if row is None or row.value_json is None:
            return default
        return row.value

    @classmethod
    def set_value(cls, key, value):
        row = db.session.get(cls, key)
        if row is None:
            row = cls(key=key)
            db.session.add(row)
        row.value_json = json.dumps(value)
        return row
