from tortoise import fields, models

from boilerplate.core.uuid import uuid7


class Guest(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid7)
    name = fields.CharField(max_length=255)
    address = fields.TextField(null=True)
    # Audit timestamps are unix milliseconds
    created_at = fields.BigIntField()
    created_by = fields.CharField(max_length=64)
    updated_at = fields.BigIntField(null=True)
    updated_by = fields.CharField(max_length=64, null=True)
    deleted_at = fields.BigIntField(null=True)
    deleted_by = fields.CharField(max_length=64, null=True)

    class Meta:
        table = "guests"
        indexes = [
            ("deleted_at",),  # Every live read filters on deleted_at IS NULL
            ("name",),
        ]
