from datetime import datetime

from mongoengine import (
    Document, EmbeddedDocument, EmbeddedDocumentField, StringField,
    FloatField, IntField, ReferenceField, DateTimeField
)


class Inventory(EmbeddedDocument):
    stock = IntField(required=True, min_value=0, default=0)
    reserved = IntField(default=0)

    @property
    def available(self) -> int:
        return max(0, (self.stock or 0) - (self.reserved or 0))


class Product(Document):
    """Catalog product; only the fields the order pipeline touches."""
    name = StringField(required=True, max_length=200)
    name_bn = StringField(max_length=200)
    image = StringField()
    seller = ReferenceField('User')
    price = FloatField(required=True, min_value=0)
    status = StringField(choices=('active', 'inactive', 'out_of_stock', 'discontinued'), default='active')
    inventory = EmbeddedDocumentField(Inventory, default=Inventory)
    created_at = DateTimeField(default=datetime.utcnow)

    meta = {
        'collection': 'products',
        'indexes': ['seller', 'status'],
        'strict': False
    }

    def reserve(self, quantity: int) -> bool:
        updated = Product.objects(id=self.id).update_one(inc__inventory__reserved=quantity)
        return bool(updated)

    def release(self, quantity: int) -> bool:
        updated = Product.objects(
            id=self.id, inventory__reserved__gte=quantity
        ).update_one(dec__inventory__reserved=quantity)
        return bool(updated)
