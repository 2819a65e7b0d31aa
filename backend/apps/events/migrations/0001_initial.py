import uuid

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                (
                    "action",
                    models.CharField(
                        db_index=True,
                        help_text="Action type, e.g. 'auth:login' or 'role:update'",
                        max_length=100,
                    ),
                ),
                ("entity_type", models.CharField(max_length=50)),
                ("entity_id", models.CharField(blank=True, max_length=100)),
                ("organization_id", models.UUIDField(blank=True, db_index=True, null=True)),
                (
                    "actor_id",
                    models.UUIDField(
                        blank=True,
                        db_index=True,
                        help_text="User that performed the action; NULL for anonymous or system",
                        null=True,
                    ),
                ),
                ("request_id", models.CharField(blank=True, db_index=True, max_length=64)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.TextField(blank=True)),
                ("before", models.JSONField(blank=True, null=True)),
                ("after", models.JSONField(blank=True, null=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["organization_id", "created_at"],
                        name="events_audit_org_created_idx",
                    ),
                    models.Index(fields=["entity_type", "entity_id"], name="events_audit_entity_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="NotificationJob",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("job_id", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                (
                    "job_type",
                    models.CharField(
                        choices=[
                            ("account_locked", "Account locked"),
                            ("password_reset", "Password reset"),
                            ("password_changed", "Password changed"),
                            ("email_verification", "Email verification"),
                            ("invitation", "Invitation"),
                        ],
                        db_index=True,
                        max_length=50,
                    ),
                ),
                ("recipient", models.EmailField(max_length=255)),
                (
                    "payload",
                    models.JSONField(default=dict, help_text="Template variables for the job type"),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("sent", "Sent"), ("failed", "Failed")],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("sent_at", models.DateTimeField(blank=True, null=True)),
                ("attempts", models.PositiveIntegerField(default=0)),
                ("next_attempt_at", models.DateTimeField(blank=True, db_index=True, null=True)),
                ("last_error", models.TextField(blank=True)),
            ],
            options={
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "next_attempt_at"], name="events_job_status_next_idx"
                    )
                ],
            },
        ),
    ]
