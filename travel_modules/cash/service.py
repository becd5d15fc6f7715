"""
Cash Management Service (``travel_modules.cash.service``).

Registers bank accounts and cash registers and reads payments.  Balances
start at the opening amount given here; after that only the ledger
propagation engine moves them.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from travel_kernel.domain.currency import normalize_code
from travel_kernel.domain.money import round_money, to_decimal
from travel_kernel.exceptions import (
    BankAccountNotFoundError,
    CashRegisterNotFoundError,
    DuplicateCashRegisterError,
    PaymentNotFoundError,
)
from travel_kernel.logging_config import get_logger
from travel_kernel.services.base import BaseService
from travel_modules.cash.models import BankAccountInfo, CashRegisterInfo, PaymentInfo
from travel_modules.cash.orm import BankAccountModel, CashRegisterModel, PaymentModel

logger = get_logger("modules.cash.service")


class CashService(BaseService[BankAccountModel]):
    """Bank accounts, cash registers and payment lookups."""

    def __init__(self, session: Session):
        super().__init__(session)

    # -- bank accounts -------------------------------------------------------

    def create_bank_account(
        self,
        name: str,
        currency: str,
        actor_id: UUID,
        *,
        bank_name: str | None = None,
        account_number: str | None = None,
        opening_balance: object = Decimal("0"),
        ledger_account_code: str | None = None,
    ) -> BankAccountInfo:
        account = BankAccountModel(
            name=name,
            currency=normalize_code(currency),
            bank_name=bank_name,
            account_number=account_number,
            balance=round_money(to_decimal(opening_balance, "opening_balance")),
            ledger_account_code=ledger_account_code,
            created_by_id=actor_id,
        )
        self.session.add(account)
        self.session.flush()
        logger.info(
            "bank_account_created",
            extra={"bank_account_id": str(account.id), "currency": account.currency},
        )
        return account.to_dto()

    def get_bank_account(self, bank_account_id: UUID) -> BankAccountInfo:
        account = self.session.get(BankAccountModel, bank_account_id)
        if account is None:
            raise BankAccountNotFoundError(str(bank_account_id))
        return account.to_dto()

    def list_bank_accounts(self, *, active_only: bool = True) -> list[BankAccountInfo]:
        stmt = select(BankAccountModel).order_by(BankAccountModel.name)
        if active_only:
            stmt = stmt.where(BankAccountModel.is_active.is_(True))
        return [a.to_dto() for a in self.session.scalars(stmt)]

    # -- cash registers ------------------------------------------------------

    def create_cash_register(
        self,
        name: str,
        currency: str,
        actor_id: UUID,
        *,
        location: str | None = None,
        opening_balance: object = Decimal("0"),
    ) -> CashRegisterInfo:
        """
        Raises:
            DuplicateCashRegisterError: If a register with this name already
                exists for the currency.
        """
        code = normalize_code(currency)
        existing = self.session.execute(
            select(CashRegisterModel).where(
                CashRegisterModel.name == name,
                CashRegisterModel.currency == code,
            )
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateCashRegisterError(name, code)
        register = CashRegisterModel(
            name=name,
            currency=code,
            location=location,
            balance=round_money(to_decimal(opening_balance, "opening_balance")),
            created_by_id=actor_id,
        )
        self.session.add(register)
        self.session.flush()
        logger.info(
            "cash_register_created",
            extra={"cash_register_id": str(register.id), "currency": code},
        )
        return register.to_dto()

    def get_cash_register(self, cash_register_id: UUID) -> CashRegisterInfo:
        register = self.session.get(CashRegisterModel, cash_register_id)
        if register is None:
            raise CashRegisterNotFoundError(str(cash_register_id))
        return register.to_dto()

    # -- payments ------------------------------------------------------------

    def get_payment(self, payment_id: UUID) -> PaymentInfo:
        payment = self.session.get(PaymentModel, payment_id)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        return payment.to_dto()

    def list_payments(
        self,
        *,
        supplier_ids: set[UUID] | None = None,
        bank_account_id: UUID | None = None,
    ) -> list[PaymentInfo]:
        """
        Args:
            supplier_ids: Restrict to these suppliers (None = all).
            bank_account_id: Restrict to one bank account.
        """
        stmt = select(PaymentModel).order_by(PaymentModel.payment_number)
        if supplier_ids is not None:
            stmt = stmt.where(PaymentModel.supplier_id.in_(list(supplier_ids)))
        if bank_account_id is not None:
            stmt = stmt.where(PaymentModel.bank_account_id == bank_account_id)
        return [p.to_dto() for p in self.session.scalars(stmt)]
