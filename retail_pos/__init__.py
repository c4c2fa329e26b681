"""
retail_pos: sales ledger and inventory reconciliation core for a retail POS.

Typical wiring:

    from retail_pos.app import create_app

    app = create_app()          # config from POS_* environment variables
    sale = app.checkout(cart, "CASH", 37.0, 0.0, 0.0, 37.0)
    refund = app.process_return(sale.id, {"P1": 1})

or, piece by piece:

    from retail_pos.config import load_config
    from retail_pos.database import open_store
    from retail_pos.modules.sales import CheckoutService, ReturnProcessor

    cfg = load_config()
    store = open_store(cfg)
    sale = CheckoutService(store, cfg).checkout(cart, "CASH", 37.0, 0.0, 0.0, 37.0)
"""

__version__ = "0.3.0"
