"""
Bundle engine errors.
All of them are DRF APIExceptions so views can let them propagate and DRF renders the status code.
"""
from rest_framework import status
from rest_framework.exceptions import APIException, NotFound


class BundleError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Bundle request could not be processed.'
    default_code = 'bundle_error'


class _ErrorListMixin:
    """Carries every violated rule, not just the first one."""

    def __init__(self, errors, detail=None):
        self.errors = list(errors)
        super().__init__(
            detail={
                'detail': detail or self.default_detail,
                'errors': self.errors,
            },
            code=self.default_code,
        )


class BundleValidationError(_ErrorListMixin, BundleError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = 'Bundle is not valid.'
    default_code = 'invalid'


class SelectionError(_ErrorListMixin, BundleError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = 'Invalid selections.'
    default_code = 'invalid_selection'


class BundleConflictError(BundleError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Conflicts with existing bundle data.'
    default_code = 'conflict'


class CapacityError(BundleError):
    """Purchase would push stock_sold past stock_limit. Shown to customers as 'sold out'."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This bundle is sold out.'
    default_code = 'sold_out'


class BundleUnavailableError(BundleError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This bundle is not currently available.'
    default_code = 'unavailable'

    def __init__(self, availability_status, detail=None):
        self.availability_status = availability_status
        super().__init__(
            detail={
                'detail': detail or self.default_detail,
                'availability_status': availability_status,
            },
            code=str(availability_status),
        )


def errors_from_serializer(detail, field=''):
    """Flatten DRF serializer errors into the same {field, code, message} list the validator uses."""
    errors = []
    if isinstance(detail, dict):
        for key, value in detail.items():
            if isinstance(key, int):
                # Nested list serializers report errors keyed by position
                errors.extend(errors_from_serializer(value, f'{field}[{key}]'))
                continue
            name = key if key != 'non_field_errors' else ''
            errors.extend(errors_from_serializer(value, f'{field}.{name}' if field and name else field or name))
    elif isinstance(detail, list):
        nested = any(isinstance(value, (dict, list)) for value in detail)
        for index, value in enumerate(detail):
            if nested:
                if value:
                    errors.extend(errors_from_serializer(value, f'{field}[{index}]'))
            else:
                errors.extend(errors_from_serializer(value, field))
    else:
        errors.append({
            'field': field,
            'code': getattr(detail, 'code', 'invalid'),
            'message': str(detail),
        })
    return errors


class BundleNotFound(NotFound):
    default_detail = 'Bundle not found.'
    default_code = 'bundle_not_found'
