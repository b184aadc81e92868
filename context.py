from threading import Lock

from cart import Cart
from config import Config
from logger import Log
from models import Customer, LoanTransaction, Loss, Product, Sale
from realtime import ChangeFeed, LocalCache, row_to_dict

CACHED_MODELS = (Product, Customer, LoanTransaction, Sale, Loss)


class PosContext:
    """
    Everything a running till holds between requests: the cart being built,
    the change feed and the local mirror of the store. Created when the app
    starts and closed when it stops.
    """

    def __init__(self, history_size: int = Config.CHANGE_HISTORY_SIZE):
        self.cart = Cart()
        self.cart_lock = Lock()
        self.feed = ChangeFeed(history_size=history_size)
        self.cache = LocalCache(self.feed, [m.__tablename__ for m in CACHED_MODELS])

    def prime(self, db):
        for model in CACHED_MODELS:
            rows = [row_to_dict(obj) for obj in db.query(model).all()]
            self.cache.load(model.__tablename__, rows)
        Log.info(f"[context.py][PosContext][prime] cache loaded for {len(CACHED_MODELS)} tables")

    def close(self):
        self.cache.close()
        self.cart.clear()
