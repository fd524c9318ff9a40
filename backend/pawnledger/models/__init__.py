from .auth import User, SessionToken
from .books import BookType, FieldDefinition, Book
from .items import Category, Item, ItemAttribute, ItemPurchase, ItemIncident
from .people import PersonType, Person
from .sales import Invoice, ItemSale
from .attachments import ImageType, DocumentType, Image, Document
from .costs import CostEventType, Cost
from .billing import Subscription
from .notifications import Notification

__all__ = [
    'User', 'SessionToken',
    'BookType', 'FieldDefinition', 'Book',
    'Category', 'Item', 'ItemAttribute', 'ItemPurchase', 'ItemIncident',
    'PersonType', 'Person',
    'Invoice', 'ItemSale',
    'ImageType', 'DocumentType', 'Image', 'Document',
    'CostEventType', 'Cost',
    'Subscription',
    'Notification',
]
