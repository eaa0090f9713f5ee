__version__ = "1.0.0"
__description__ = "docrud : declarative CRUD resources for Flask and SQLAlchemy"
