from datetime import datetime
from enum import Enum

from mongoengine import (
    Document, EmailField, StringField, BooleanField,
    DateTimeField, EnumField
)


# =====================================
#  ROLE ENUM
# =====================================
class Role(Enum):
    USER = "user"
    SELLER = "seller"
    ADMIN = "admin"


# =====================================
#  USER MODEL
# =====================================
class User(Document):
    """Marketplace account. Written by the auth service, read here."""
    name = StringField(required=True, max_length=50)
    email = EmailField(required=True, unique=True)
    phone = StringField(max_length=20)
    role = EnumField(Role, default=Role.USER)
    active = BooleanField(default=True)
    created_at = DateTimeField(default=datetime.utcnow)

    meta = {
        'collection': 'users',
        'indexes': ['email', 'role'],
        'strict': False
    }

    def clean(self):
        if self.email:
            self.email = self.email.strip().lower()

    @property
    def role_value(self) -> str:
        return getattr(self.role, "value", self.role)

    @property
    def is_admin(self) -> bool:
        return self.role_value == Role.ADMIN.value

    def to_json(self) -> dict:
        return {
            'id': str(self.id),
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'role': self.role_value,
            'active': self.active
        }
