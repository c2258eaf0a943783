import pytest

from storefront.services.errors import CheckoutBusy
from storefront.utils.locks import user_lock


def test_second_holder_gets_checkout_busy():
    with user_lock(42):
        with pytest.raises(CheckoutBusy) as exc:
            with user_lock(42, timeout=0.05):
                pass
        assert exc.value.details == {"user_id": 42}
        # other users are not affected
        with user_lock(43, timeout=0.05):
            pass
    with user_lock(42, timeout=0.05):
        pass
