from sqlalchemy import update

from book_rental.models.book import Book
from book_rental.extensions import db
from book_rental.exceptions import UnavailableError

class BookRepo:
    @staticmethod
    def get_by_external_id(external_id: int):
        return Book.query.filter_by(external_id=external_id).first()

    @staticmethod
    def add(book: Book):
        db.session.add(book)
        db.session.flush()
        return book

    @staticmethod
    def decrease_available_quantity(external_id: int):
        # check-and-decrement in one statement so two borrowers can't take the last copy
        result = db.session.execute(
            update(Book)
            .where(Book.external_id == external_id, Book.available_quantity > 0)
            .values(available_quantity=Book.available_quantity - 1)
        )
        if result.rowcount == 0:
            raise UnavailableError(f"No copies available for book {external_id}")

    @staticmethod
    def increase_available_quantity(external_id: int) -> bool:
        # never above stock_quantity
        result = db.session.execute(
            update(Book)
            .where(Book.external_id == external_id, Book.available_quantity < Book.stock_quantity)
            .values(available_quantity=Book.available_quantity + 1)
        )
        return result.rowcount > 0
