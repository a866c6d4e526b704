"""Package repository - Database operations for packages and subscriptions"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Customer, Tenant
from ...models_package import PackageService, PackageSubscription, ServicePackage


class PackageRepository:
    """Repository for package subscription database operations"""

    @staticmethod
    def get_tenant(db: Session, tenant_id: int) -> Optional[Tenant]:
        return db.query(Tenant).filter(Tenant.id == tenant_id).first()

    @staticmethod
    def get_package(db: Session, package_id: int, tenant_id: int) -> Optional[ServicePackage]:
        return (
            db.query(ServicePackage)
            .filter(ServicePackage.id == package_id, ServicePackage.tenant_id == tenant_id)
            .first()
        )

    @staticmethod
    def get_package_services(db: Session, package_id: int) -> list[PackageService]:
        return db.query(PackageService).filter(PackageService.package_id == package_id).all()

    @staticmethod
    def get_customer(db: Session, customer_id: int, tenant_id: int) -> Optional[Customer]:
        return db.query(Customer).filter(Customer.id == customer_id, Customer.tenant_id == tenant_id).first()

    @staticmethod
    def get_customer_by_phone(db: Session, phone: str, tenant_id: int) -> Optional[Customer]:
        return db.query(Customer).filter(Customer.phone == phone, Customer.tenant_id == tenant_id).first()

    @staticmethod
    def add_customer(db: Session, tenant_id: int, name: str, phone: str, email: Optional[str]) -> Customer:
        customer = Customer(tenant_id=tenant_id, name=name, phone=phone, email=email)
        db.add(customer)
        db.flush()
        return customer

    @staticmethod
    def get_active_subscription(
        db: Session, customer_id: int, package_id: int
    ) -> Optional[PackageSubscription]:
        return (
            db.query(PackageSubscription)
            .filter(
                PackageSubscription.customer_id == customer_id,
                PackageSubscription.package_id == package_id,
                PackageSubscription.status == "active",
            )
            .first()
        )

    @staticmethod
    def get_subscription(db: Session, subscription_id: int, tenant_id: int) -> Optional[PackageSubscription]:
        return (
            db.query(PackageSubscription)
            .filter(PackageSubscription.id == subscription_id, PackageSubscription.tenant_id == tenant_id)
            .first()
        )

    @staticmethod
    def add_subscription(db: Session, **subscription_data) -> PackageSubscription:
        subscription = PackageSubscription(**subscription_data)
        db.add(subscription)
        db.flush()
        return subscription
