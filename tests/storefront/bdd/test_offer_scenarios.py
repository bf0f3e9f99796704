"""BDD tests for offers and the order summary."""

from pytest_bdd import given, parsers, scenarios, then, when
from storefront.shared.errors import ValidationRejected

scenarios("features/offers.feature")


@given("the offer catalog is loaded")
def catalog_loaded(shopper, run):
    run(shopper.offers.refresh_catalog())


@when(parsers.cfparse('the shopper applies offer "{offer_id}"'))
def apply_offer(shopper, run, error, offer_id):
    try:
        run(shopper.offers.apply(offer_id))
    except ValidationRejected as exc:
        error["exc"] = exc


@then(parsers.cfparse('offer "{offer_id}" is "{status}"'))
def offer_status(shopper, offer_id, status):
    assert shopper.offers.view(offer_id).status.value == status


@then("the offer is refused")
def offer_refused(error):
    assert isinstance(error["exc"], ValidationRejected)


@then(parsers.cfparse('the summary shows subtotal "{subtotal}" discount "{discount}" tax "{tax}" total "{total}"'))
def summary_shows(shopper, subtotal, discount, tax, total):
    summary = shopper.summary().as_dict()
    assert summary["subtotal"] == subtotal
    assert summary["discount"] == discount
    assert summary["tax"] == tax
    assert summary["total"] == total
