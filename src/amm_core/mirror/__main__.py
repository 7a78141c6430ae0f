"""Allow running the mirror as: python -m amm_core.mirror [--config path]."""

from amm_core.mirror.worker import main

main()
