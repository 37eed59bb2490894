"""MoneyWise assistant core.

Maps natural-language commands (typed or spoken) to actions over the
per-company MoneyWise data stores.
"""

__version__ = "0.1.0"
