
class LoanlyAPIError(Exception): pass

class NotFoundError(LoanlyAPIError): pass

class LoanNotFoundError(NotFoundError): pass

class ItemNotFoundError(NotFoundError): pass

class PatronNotFoundError(NotFoundError): pass

class ExistingLoanError(LoanlyAPIError): pass

class BookUnavailableError(LoanlyAPIError): pass

class InvalidTransitionError(LoanlyAPIError): pass

class InvalidStateError(LoanlyAPIError): pass

class ItemInUseError(LoanlyAPIError): pass

class PermissionDeniedError(LoanlyAPIError): pass

class InvalidQueryError(LoanlyAPIError): pass

class DatabaseError(LoanlyAPIError): pass

class AuthenticationError(LoanlyAPIError): pass

class DuplicatePatronError(LoanlyAPIError): pass
