"""Default chart of accounts, converted from configuration into seeds."""

from travel_config.schema import AccountingConfig
from travel_kernel.models.account import AccountType
from travel_kernel.services.chart_service import AccountSeed


def chart_seeds(config: AccountingConfig) -> list[AccountSeed]:
    """Seeds for ``ChartService.seed_chart`` in declaration order (parents first)."""
    return [
        AccountSeed(
            code=account.code,
            name=account.name,
            account_type=AccountType(account.account_type),
            parent_code=account.parent_code,
            currency=account.currency,
        )
        for account in config.chart
    ]
