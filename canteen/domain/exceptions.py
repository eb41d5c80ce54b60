class DomainException(Exception):
    user_message = "Что-то пошло не так. Попробуйте еще раз."


class OrderNotFoundError(DomainException):
    user_message = "Заказ не найден. Проверьте номер заказа или штрихкод."

    def __init__(self, token: str):
        self.token = token
        super().__init__(f"Заказ {token} не найден")


class InvalidTransitionError(DomainException):
    user_message = "Статус заказа уже изменился. Обновите экран и повторите действие."

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(f"Недопустимый переход: {current} -> {requested}")


class DuplicateOrderError(DomainException):
    user_message = "Не удалось присвоить номер заказу. Повторяем с новым номером."


class EmptyOrderError(DomainException):
    user_message = "В заказе нет ни одной позиции."


class ImmutableFieldError(DomainException):
    user_message = "Это поле заказа нельзя изменить напрямую."

    def __init__(self, fields):
        self.fields = sorted(fields)
        super().__init__(f"Поля нельзя менять через patch: {', '.join(self.fields)}")


class BarcodeAlreadyUsedError(DomainException):
    user_message = "Этот штрихкод уже был использован для выдачи заказа."


class PaymentSessionExpiredError(DomainException):
    user_message = "Время на оплату истекло. Повторите оплату, корзина сохранена."


class PaymentSessionStateError(DomainException):
    user_message = "Оплата уже выполняется. Дождитесь ее завершения."


class CriticalReconciliationError(DomainException):
    user_message = (
        "Оплата прошла, но заказ не был сохранен. "
        "Обратитесь в столовую для ручной сверки."
    )

    def __init__(self, transaction_ref: str, draft, cause: Exception):
        self.transaction_ref = transaction_ref
        self.draft = draft
        self.cause = cause
        super().__init__(
            f"Платеж {transaction_ref} прошел, но заказ не создан: {cause}"
        )


class BackendUnavailableError(DomainException):
    user_message = "Сервер недоступен. Проверьте соединение и повторите попытку."


class InvalidOrderError(DomainException):
    user_message = "Заказ не прошел проверку на сервере. Оформите его заново."
