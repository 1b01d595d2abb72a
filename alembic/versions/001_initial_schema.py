"""Initial schema: users, tourists, devices, alerts, digital ID cards.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="tourist"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "tourists",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("tourist_code", sa.String(20), nullable=False),
        sa.Column("first_name", sa.String(50), nullable=False),
        sa.Column("last_name", sa.String(50), nullable=False),
        sa.Column("nationality", sa.String(60), nullable=False),
        sa.Column("passport_number", sa.String(30), nullable=False),
        sa.Column("phone_number", sa.String(20), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("accuracy", sa.Float(), nullable=True),
        sa.Column("location_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("safety_score", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("risk_level", sa.String(20), nullable=False, server_default="low"),
        sa.Column("alerts_triggered", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_placeholder", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
        sa.UniqueConstraint("passport_number"),
    )
    op.create_index(op.f("ix_tourists_tourist_code"), "tourists", ["tourist_code"], unique=True)

    op.create_table(
        "tourist_locations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tourist_id", sa.Integer(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("accuracy", sa.Float(), nullable=True),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["tourist_id"], ["tourists.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_tourist_locations_tourist_id"), "tourist_locations", ["tourist_id"], unique=False)

    op.create_table(
        "devices",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("device_code", sa.String(20), nullable=False),
        sa.Column("tourist_id", sa.Integer(), nullable=True),
        sa.Column("device_type", sa.String(20), nullable=False),
        sa.Column("manufacturer", sa.String(100), nullable=False),
        sa.Column("model", sa.String(100), nullable=False),
        sa.Column("serial_number", sa.String(60), nullable=False),
        sa.Column("firmware_version", sa.String(20), nullable=False, server_default="1.0.0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("battery_level", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("signal_strength", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("heart_rate", sa.Integer(), nullable=True),
        sa.Column("temperature", sa.Float(), nullable=True),
        sa.Column("oxygen_saturation", sa.Integer(), nullable=True),
        sa.Column("steps", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("accuracy", sa.Float(), nullable=True),
        sa.Column("altitude", sa.Float(), nullable=True),
        sa.Column("speed", sa.Float(), nullable=True),
        sa.Column("heading", sa.Float(), nullable=True),
        sa.Column("flag_battery_low", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("flag_signal_weak", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("flag_heart_rate_abnormal", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("flag_temperature_abnormal", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("flag_fall_detected", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("flag_panic_button_pressed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("flag_geofence_violation", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("alerts_generated", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_update", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["tourist_id"], ["tourists.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("serial_number"),
    )
    op.create_index(op.f("ix_devices_device_code"), "devices", ["device_code"], unique=True)
    op.create_index(op.f("ix_devices_tourist_id"), "devices", ["tourist_id"], unique=False)

    op.create_table(
        "alerts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("alert_id", sa.String(16), nullable=False),
        sa.Column("tourist_id", sa.Integer(), nullable=False),
        sa.Column("device_id", sa.Integer(), nullable=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("severity", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.String(1000), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("accuracy", sa.Float(), nullable=True),
        sa.Column("heart_rate", sa.Integer(), nullable=True),
        sa.Column("temperature", sa.Float(), nullable=True),
        sa.Column("device_flag", sa.String(30), nullable=True),
        sa.Column("device_code", sa.String(20), nullable=True),
        sa.Column("emergency_type", sa.String(20), nullable=True),
        sa.Column("triggered_by", sa.String(20), nullable=True),
        sa.Column("source", sa.String(20), nullable=False),
        sa.Column("confidence", sa.Integer(), nullable=False, server_default="80"),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("acknowledged_by", sa.Integer(), nullable=True),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by", sa.Integer(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution", sa.String(500), nullable=True),
        sa.Column("escalation_level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("escalated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("escalated_to", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["tourist_id"], ["tourists.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["device_id"], ["devices.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["acknowledged_by"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["resolved_by"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_alerts_alert_id"), "alerts", ["alert_id"], unique=True)
    op.create_index(op.f("ix_alerts_tourist_id"), "alerts", ["tourist_id"], unique=False)
    op.create_index(op.f("ix_alerts_device_id"), "alerts", ["device_id"], unique=False)
    op.create_index(op.f("ix_alerts_status"), "alerts", ["status"], unique=False)

    op.create_table(
        "alert_timeline",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("alert_pk", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("event", sa.String(32), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(["alert_pk"], ["alerts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_alert_timeline_alert_pk"), "alert_timeline", ["alert_pk"], unique=False)

    op.create_table(
        "alert_actions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("alert_pk", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(200), nullable=False),
        sa.Column("performed_by", sa.Integer(), nullable=False),
        sa.Column("performed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.String(500), nullable=True),
        sa.ForeignKeyConstraint(["alert_pk"], ["alerts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_alert_actions_alert_pk"), "alert_actions", ["alert_pk"], unique=False)

    op.create_table(
        "digital_id_cards",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tourist_id", sa.Integer(), nullable=False),
        sa.Column("serial", sa.String(40), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("document_type", sa.String(30), nullable=False),
        sa.Column("document_number", sa.String(60), nullable=False),
        sa.Column("photo_ref", sa.String(255), nullable=True),
        sa.Column("qr_payload", sa.Text(), nullable=False),
        sa.Column("qr_payload_hash", sa.String(64), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.ForeignKeyConstraint(["tourist_id"], ["tourists.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tourist_id", "version", name="uq_digital_id_cards_tourist_version"),
    )
    op.create_index(op.f("ix_digital_id_cards_tourist_id"), "digital_id_cards", ["tourist_id"], unique=False)
    op.create_index(op.f("ix_digital_id_cards_serial"), "digital_id_cards", ["serial"], unique=True)


def downgrade() -> None:
    op.drop_index(op.f("ix_digital_id_cards_serial"), table_name="digital_id_cards")
    op.drop_index(op.f("ix_digital_id_cards_tourist_id"), table_name="digital_id_cards")
    op.drop_table("digital_id_cards")
    op.drop_index(op.f("ix_alert_actions_alert_pk"), table_name="alert_actions")
    op.drop_table("alert_actions")
    op.drop_index(op.f("ix_alert_timeline_alert_pk"), table_name="alert_timeline")
    op.drop_table("alert_timeline")
    op.drop_index(op.f("ix_alerts_status"), table_name="alerts")
    op.drop_index(op.f("ix_alerts_device_id"), table_name="alerts")
    op.drop_index(op.f("ix_alerts_tourist_id"), table_name="alerts")
    op.drop_index(op.f("ix_alerts_alert_id"), table_name="alerts")
    op.drop_table("alerts")
    op.drop_index(op.f("ix_devices_tourist_id"), table_name="devices")
    op.drop_index(op.f("ix_devices_device_code"), table_name="devices")
    op.drop_table("devices")
    op.drop_index(op.f("ix_tourist_locations_tourist_id"), table_name="tourist_locations")
    op.drop_table("tourist_locations")
    op.drop_index(op.f("ix_tourists_tourist_code"), table_name="tourists")
    op.drop_table("tourists")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
