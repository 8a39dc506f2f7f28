import datetime

import jwt
import pytest

from attendance_api.auth import create_access_token, decode_faculty_id
from attendance_api.config import settings
from attendance_api.exceptions import Unauthenticated


def test_token_round_trips_faculty_id():
    assert decode_faculty_id(create_access_token(7)) == 7


def test_expired_token_is_rejected():
    token = create_access_token(7, expires_in=datetime.timedelta(seconds=-30))
    with pytest.raises(Unauthenticated, match="expired"):
        decode_faculty_id(token)


def test_token_signed_with_other_key_is_rejected():
    token = jwt.encode({"sub": "7"}, "another-secret-key-for-attendance-0002", algorithm="HS256")
    with pytest.raises(Unauthenticated):
        decode_faculty_id(token)


@pytest.mark.parametrize("subject", ["abc", "0", "-3"])
def test_token_without_valid_subject_is_rejected(subject):
    token = jwt.encode({"sub": subject}, settings.SECRET_KEY, algorithm="HS256")
    with pytest.raises(Unauthenticated):
        decode_faculty_id(token)
