from mongoengine import Document, StringField, IntField


class Counter(Document):
    name = StringField(primary_key=True)
    value = IntField(default=0)

    meta = {'collection': 'counters'}

    @classmethod
    def next_value(cls, name: str) -> int:
        """Atomically increment and return the counter, creating it at 1."""
        counter = cls.objects(name=name).modify(upsert=True, new=True, inc__value=1)
        return counter.value
