import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    supabase_uid = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    memberships = relationship("CompanyMember", back_populates="user", cascade="all, delete-orphan")
    user_roles = relationship(
        "UserRole",
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="UserRole.user_id",
    )


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    name = Column(String(255), nullable=False)
    tax_id = Column(String(8), nullable=True)  # 統一編號
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    members = relationship("CompanyMember", back_populates="company", cascade="all, delete-orphan")
    invitations = relationship(
        "CompanyInvitation", back_populates="company", cascade="all, delete-orphan"
    )


class CompanyMember(Base):
    __tablename__ = "company_members"
    __table_args__ = (UniqueConstraint("company_id", "user_id", name="uq_company_member"),)

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role_name = Column(String(50), nullable=False, default="salesperson")
    is_active = Column(Boolean, default=True, nullable=False)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    company = relationship("Company", back_populates="members")
    user = relationship("User", back_populates="memberships")


class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)  # super_admin, company_owner, ...
    display_name = Column(String(100), nullable=True)
    level = Column(Integer, nullable=False)  # Lower is more privileged
    description = Column(Text, nullable=True)

    role_permissions = relationship(
        "RolePermission", back_populates="role", cascade="all, delete-orphan"
    )


class Permission(Base):
    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)  # e.g. view_products
    resource = Column(String(50), nullable=False)
    action = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)


class RolePermission(Base):
    __tablename__ = "role_permissions"
    __table_args__ = (UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),)

    id = Column(Integer, primary_key=True, index=True)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False, index=True)
    permission_id = Column(Integer, ForeignKey("permissions.id"), nullable=False)

    role = relationship("Role", back_populates="role_permissions")
    permission = relationship("Permission")


class UserRole(Base):
    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role_id", "company_id", name="uq_user_role"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False)
    # NULL for platform-wide roles, otherwise the company the role applies in
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=True, index=True)
    assigned_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    assigned_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="user_roles", foreign_keys=[user_id])
    role = relationship("Role")


class UserPermission(Base):
    """Direct permission grants outside of any role"""

    __tablename__ = "user_permissions"
    __table_args__ = (UniqueConstraint("user_id", "permission_id", name="uq_user_permission"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    permission_id = Column(Integer, ForeignKey("permissions.id"), nullable=False)
    granted_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    permission = relationship("Permission")


class CompanyInvitation(Base):
    __tablename__ = "company_invitations"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    invite_code = Column(String(16), unique=True, index=True, nullable=False)
    role_name = Column(String(50), nullable=False, default="salesperson")
    max_uses = Column(Integer, default=1, nullable=False)
    used_count = Column(Integer, default=0, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    company = relationship("Company", back_populates="invitations")


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    name_zh = Column(String(255), nullable=False)
    name_en = Column(String(255), nullable=True)
    contact_person = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    fax = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    tax_id = Column(String(8), nullable=True)
    notes = Column(Text, nullable=True)
    # Contract tracking: prospect, contracted, expired
    contract_status = Column(String(20), default="prospect", nullable=False)
    contract_expiry_date = Column(Date, nullable=True)
    payment_terms = Column(String(20), nullable=True)  # quarterly, semi_annual, annual
    next_payment_due_date = Column(Date, nullable=True)
    next_payment_amount = Column(Float, nullable=True)
    payment_currency = Column(String(3), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    sku = Column(String(100), nullable=True, index=True)
    name_zh = Column(String(255), nullable=False)
    name_en = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    unit = Column(String(20), nullable=True)
    unit_price = Column(Float, nullable=False, default=0)
    currency = Column(String(3), default="TWD", nullable=False)
    # Cost fields are only visible to roles that can access product cost
    cost_price = Column(Float, nullable=True)
    cost_currency = Column(String(3), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Quotation(Base):
    __tablename__ = "quotations"
    __table_args__ = (
        UniqueConstraint("company_id", "quotation_number", name="uq_quotation_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    quotation_number = Column(String(50), nullable=False)
    status = Column(String(20), default="draft", nullable=False)  # draft, sent, accepted, rejected, expired
    issue_date = Column(Date, nullable=False)
    valid_until = Column(Date, nullable=True)
    currency = Column(String(3), default="TWD", nullable=False)
    exchange_rate = Column(Float, default=1.0, nullable=False)
    subtotal = Column(Float, default=0, nullable=False)
    tax_rate = Column(Float, default=5, nullable=False)
    tax_amount = Column(Float, default=0, nullable=False)
    discount_amount = Column(Float, default=0, nullable=False)
    total_amount = Column(Float, default=0, nullable=False)
    # Collection tracking: unpaid, partial, paid, overdue
    payment_status = Column(String(20), default="unpaid", nullable=False)
    payment_due_date = Column(Date, nullable=True)
    total_paid = Column(Float, default=0, nullable=False)
    # Contract conversion details
    payment_frequency = Column(String(20), nullable=True)
    contract_signed_date = Column(Date, nullable=True)
    contract_expiry_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer")
    items = relationship(
        "QuotationItem",
        back_populates="quotation",
        cascade="all, delete-orphan",
        order_by="QuotationItem.sort_order",
    )


class QuotationItem(Base):
    __tablename__ = "quotation_items"

    id = Column(Integer, primary_key=True, index=True)
    quotation_id = Column(Integer, ForeignKey("quotations.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    description = Column(Text, nullable=True)
    quantity = Column(Float, nullable=False, default=1)
    unit = Column(String(20), nullable=True)
    unit_price = Column(Float, nullable=False, default=0)
    discount = Column(Float, default=0, nullable=False)  # Percentage
    amount = Column(Float, default=0, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    quotation = relationship("Quotation", back_populates="items")
    product = relationship("Product")


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (UniqueConstraint("company_id", "order_number", name="uq_order_number"),)

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    quotation_id = Column(Integer, ForeignKey("quotations.id"), nullable=True, index=True)
    order_number = Column(String(50), nullable=False)
    # draft -> confirmed -> shipped -> completed, or cancelled
    status = Column(String(20), default="draft", nullable=False)
    order_date = Column(Date, nullable=False)
    expected_delivery_date = Column(Date, nullable=True)
    currency = Column(String(3), default="TWD", nullable=False)
    exchange_rate = Column(Float, default=1.0, nullable=False)
    subtotal = Column(Float, default=0, nullable=False)
    tax_rate = Column(Float, default=5, nullable=False)
    tax_amount = Column(Float, default=0, nullable=False)
    discount_amount = Column(Float, default=0, nullable=False)
    total_amount = Column(Float, default=0, nullable=False)
    show_tax = Column(Boolean, default=True, nullable=False)
    notes = Column(Text, nullable=True)
    terms = Column(Text, nullable=True)
    shipping_address = Column(Text, nullable=True)
    billing_address = Column(Text, nullable=True)
    confirmed_at = Column(DateTime, nullable=True)
    shipped_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.sort_order",
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    quotation_item_id = Column(Integer, ForeignKey("quotation_items.id"), nullable=True)
    product_name = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    sku = Column(String(100), nullable=True)
    quantity = Column(Float, nullable=False, default=1)
    unit = Column(String(20), nullable=True)
    unit_price = Column(Float, nullable=False, default=0)
    discount = Column(Float, default=0, nullable=False)
    amount = Column(Float, default=0, nullable=False)
    quantity_shipped = Column(Float, default=0, nullable=False)
    quantity_remaining = Column(Float, default=0, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    notes = Column(Text, nullable=True)

    order = relationship("Order", back_populates="items")


class Shipment(Base):
    __tablename__ = "shipments"
    __table_args__ = (
        UniqueConstraint("company_id", "shipment_number", name="uq_shipment_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    shipment_number = Column(String(50), nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # pending, in_transit, delivered, cancelled
    shipping_date = Column(Date, nullable=True)
    expected_delivery = Column(Date, nullable=True)
    actual_delivery = Column(Date, nullable=True)
    carrier = Column(String(100), nullable=True)
    tracking_number = Column(String(100), nullable=True)
    currency = Column(String(3), default="TWD", nullable=False)
    subtotal = Column(Float, default=0, nullable=False)
    shipping_fee = Column(Float, default=0, nullable=False)
    total_amount = Column(Float, default=0, nullable=False)
    recipient_name = Column(String(255), nullable=True)
    recipient_phone = Column(String(50), nullable=True)
    recipient_address = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    invoice_id = Column(Integer, ForeignKey("accounting_invoices.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    order = relationship("Order")
    items = relationship(
        "ShipmentItem",
        back_populates="shipment",
        cascade="all, delete-orphan",
        order_by="ShipmentItem.sort_order",
    )


class ShipmentItem(Base):
    __tablename__ = "shipment_items"

    id = Column(Integer, primary_key=True, index=True)
    shipment_id = Column(Integer, ForeignKey("shipments.id"), nullable=False, index=True)
    order_item_id = Column(Integer, ForeignKey("order_items.id"), nullable=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    product_name = Column(String(255), nullable=True)
    sku = Column(String(100), nullable=True)
    quantity_shipped = Column(Float, nullable=False, default=0)
    unit = Column(String(20), nullable=True)
    unit_price = Column(Float, nullable=False, default=0)
    amount = Column(Float, default=0, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    shipment = relationship("Shipment", back_populates="items")


class CustomerContract(Base):
    __tablename__ = "customer_contracts"
    __table_args__ = (
        UniqueConstraint("company_id", "contract_number", name="uq_contract_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    quotation_id = Column(Integer, ForeignKey("quotations.id"), nullable=True)
    contract_number = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    signed_date = Column(Date, nullable=True)
    total_amount = Column(Float, nullable=False, default=0)
    currency = Column(String(3), default="TWD", nullable=False)
    payment_terms = Column(String(20), nullable=True)  # quarterly, semi_annual, annual
    status = Column(String(20), default="active", nullable=False)  # active, expired, terminated
    next_billing_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer")
    schedules = relationship(
        "PaymentSchedule",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="PaymentSchedule.schedule_number",
    )


class PaymentSchedule(Base):
    __tablename__ = "payment_schedules"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    contract_id = Column(Integer, ForeignKey("customer_contracts.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    schedule_number = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), default="TWD", nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # pending, paid, overdue, cancelled
    paid_amount = Column(Float, default=0, nullable=False)
    paid_date = Column(Date, nullable=True)
    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=True)
    days_overdue = Column(Integer, default=0, nullable=False)
    reminder_count = Column(Integer, default=0, nullable=False)
    last_reminder_sent_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    contract = relationship("CustomerContract", back_populates="schedules")
    customer = relationship("Customer")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    quotation_id = Column(Integer, ForeignKey("quotations.id"), nullable=True)
    contract_id = Column(Integer, ForeignKey("customer_contracts.id"), nullable=True)
    # deposit, installment, final, full, recurring
    payment_type = Column(String(20), default="installment", nullable=False)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), default="TWD", nullable=False)
    payment_date = Column(Date, nullable=False)
    payment_method = Column(String(30), nullable=True)  # bank_transfer, cash, check, credit_card
    reference_number = Column(String(100), nullable=True)
    status = Column(String(20), default="confirmed", nullable=False)  # confirmed, pending, cancelled
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ExchangeRate(Base):
    __tablename__ = "exchange_rates"
    __table_args__ = (
        UniqueConstraint("from_currency", "to_currency", "date", name="uq_exchange_rate_day"),
    )

    id = Column(Integer, primary_key=True, index=True)
    from_currency = Column(String(3), nullable=False, index=True)
    to_currency = Column(String(3), nullable=False, index=True)
    rate = Column(Float, nullable=False)
    date = Column(Date, nullable=False, index=True)
    source = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ErrorAggregate(Base):
    """Deduplicated application errors, keyed by fingerprint"""

    __tablename__ = "error_aggregates"

    id = Column(Integer, primary_key=True, index=True)
    fingerprint = Column(String(64), unique=True, index=True, nullable=False)
    error_type = Column(String(100), nullable=True)
    message = Column(Text, nullable=False)
    stack_trace = Column(Text, nullable=True)
    path = Column(String(500), nullable=True)
    count = Column(Integer, default=1, nullable=False)
    first_seen = Column(DateTime, nullable=False)
    last_seen = Column(DateTime, nullable=False, index=True)
    resolved = Column(Boolean, default=False, nullable=False)
    resolved_at = Column(DateTime, nullable=True)
    resolved_by = Column(String(255), nullable=True)
    context = Column(JSON, nullable=True)
