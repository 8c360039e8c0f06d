# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from winfeature.main import cli

if __name__ == "__main__":
    cli()
