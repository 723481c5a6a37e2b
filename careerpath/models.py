from datetime import datetime
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

class User(db.Model):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    uid = db.Column(db.String(128), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(120))
    profile_image = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def display_name(self):
        return self.name or self.email

    @property
    def initial(self):
        source = self.name or self.email or ""
        return source[:1].upper() or "CN"

    def to_dict(self):
        return {
            "id": self.uid,
            "email": self.email,
            "name": self.name,
            "profileImage": self.profile_image,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
