# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Python client for the Para backend.

The signer owns request authentication (SigV4, anonymous and JWT
modes); the client sends the signed requests and keeps the JWT session.
"""

from paraclient.client import JWT_PATH, ParaClient
from paraclient.config import ClientConfig, ConfigError
from paraclient.constraints import Constraint, ConstraintKind
from paraclient.session import TokenSession
from paraclient.signer import (
    REGION_NAME,
    SERVICE_NAME,
    SignedRequest,
    Signer,
    format_aws_date,
    parse_aws_date,
)
from paraclient.sysprop import Sysprop


__all__ = [
    # client
    "JWT_PATH",
    "ParaClient",
    # config
    "ClientConfig",
    "ConfigError",
    # constraints
    "Constraint",
    "ConstraintKind",
    # session
    "TokenSession",
    # signer
    "REGION_NAME",
    "SERVICE_NAME",
    "SignedRequest",
    "Signer",
    "format_aws_date",
    "parse_aws_date",
    # sysprop
    "Sysprop",
]
