import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Chat",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("name", models.CharField(blank=True, default="", help_text="Display name for group chats", max_length=100)),
                ("chat_type", models.CharField(choices=[("single", "Single"), ("group", "Group")], help_text="SINGLE (two people) or GROUP", max_length=10)),
                ("last_activity_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now, help_text="Time of the most recent message (creation time until then)")),
            ],
            options={
                "db_table": "chat_chat",
                "ordering": ["-last_activity_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="DirectChatPair",
            fields=[
                ("chat", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name="direct_pair", serialize=False, to="chat.chat")),
                ("user_lower", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("user_higher", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "chat_direct_chat_pair",
                "constraints": [
                    models.UniqueConstraint(fields=("user_lower", "user_higher"), name="unique_direct_chat_pair"),
                    models.CheckConstraint(condition=models.Q(("user_lower_id__lt", models.F("user_higher_id"))), name="direct_pair_user_lower_less_than_higher"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ChatParticipant",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("joined_at", models.DateTimeField(auto_now_add=True)),
                ("chat", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="participants", to="chat.chat")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="chat_memberships", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "chat_participant",
                "ordering": ["joined_at", "id"],
                "indexes": [models.Index(fields=["user", "chat"], name="chat_participant_user_idx")],
                "constraints": [models.UniqueConstraint(fields=("chat", "user"), name="unique_chat_participant")],
            },
        ),
        migrations.CreateModel(
            name="Message",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("message_type", models.CharField(choices=[("text", "Text"), ("image", "Image"), ("file", "File"), ("audio", "Audio"), ("video", "Video")], default="text", max_length=10)),
                ("content", models.TextField()),
                ("status", models.CharField(choices=[("sent", "Sent"), ("delivered", "Delivered"), ("read", "Read")], default="sent", max_length=10)),
                ("chat", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="messages", to="chat.chat")),
                ("sender", models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="sent_messages", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "chat_message",
                "ordering": ["created_at", "id"],
                "indexes": [models.Index(fields=["chat", "created_at", "id"], name="chat_message_history_idx")],
            },
        ),
        migrations.CreateModel(
            name="MessageReceipt",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("status", models.CharField(choices=[("sent", "Sent"), ("delivered", "Delivered"), ("read", "Read")], default="sent", max_length=10)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                ("read_at", models.DateTimeField(blank=True, null=True)),
                ("chat", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="+", to="chat.chat")),
                ("message", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="receipts", to="chat.message")),
                ("recipient", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="message_receipts", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "chat_message_receipt",
                "indexes": [models.Index(fields=["chat", "recipient", "status"], name="chat_receipt_unread_idx")],
                "constraints": [models.UniqueConstraint(fields=("message", "recipient"), name="unique_message_receipt")],
            },
        ),
    ]
