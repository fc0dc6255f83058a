from domain.jurisdiction import JurisdictionId, UsState

CA_ID = JurisdictionId("st-ca")
TX_ID = JurisdictionId("st-tx")
NY_ID = JurisdictionId("st-ny")

CALIFORNIA = UsState(id=CA_ID, code="CA", name="California")
TEXAS = UsState(id=TX_ID, code="TX", name="Texas")
NEW_YORK = UsState(id=NY_ID, code="NY", name="New York")

ALL_STATES = [CALIFORNIA, TEXAS, NEW_YORK]
