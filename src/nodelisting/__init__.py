"""nodelisting: публичный реестр самоанонсирующихся узлов."""

__version__ = "0.1.0"
