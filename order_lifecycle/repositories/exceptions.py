"""
Исключения для работы с репозиториями
"""


class RepositoryError(Exception):
    """Базовое исключение для репозиториев"""


class EntityNotFoundError(RepositoryError):
    """
    Исключение при отсутствии записи
    """

    def __init__(self, entity_type: str, entity_id: str | int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} #{entity_id} not found")


class DuplicateEntityError(RepositoryError):
    """
    Исключение при нарушении уникальности (например, второе отправление у заказа)
    """

    def __init__(self, entity_type: str, key: str):
        self.entity_type = entity_type
        self.key = key
        super().__init__(f"{entity_type} with key {key!r} already exists")
