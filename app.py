#!/usr/bin/env python3
"""AWS CDK entrypoint for provisioning the hosting platform.

The target environment is selected with ``cdk synth -c config=<env>`` (default
``dev``); its configuration record is read from ``cdk.json``. Account and
region come from that record rather than from the CLI defaults so every
unit of one environment lands in the same place.
"""
import aws_cdk as cdk

from common.config import load_build_config
from hosting_app.hosting_app import build_hosting_app

app = cdk.App()

build_config = load_build_config(app)
build_hosting_app(app, build_config)

app.synth()
