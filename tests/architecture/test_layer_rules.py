"""
Dependency direction between featureflow's layers.

domain <- application <- interface (cli, console, logging_setup)
domain <- infrastructure <- interface

The Dispatcher reaches executors and stores only through the ports in
domain/interfaces.py; the CLI is where concrete adapters are chosen.
"""

import pytest
from pytestarch import LayerRule

FORBIDDEN = [
    ("domain", "application"),
    ("domain", "infrastructure"),
    ("domain", "interface"),
    ("application", "infrastructure"),
    ("application", "interface"),
    ("infrastructure", "application"),
    ("infrastructure", "interface"),
]


class TestLayerRules:
    @pytest.mark.parametrize(("layer", "forbidden"), FORBIDDEN)
    def test_layer_does_not_access(self, evaluable, layers, layer, forbidden):  # noqa: ANN001
        rule = (
            LayerRule()
            .based_on(layers)
            .layers_that()
            .are_named(layer)
            .should_not()
            .access_layers_that()
            .are_named(forbidden)
        )
        rule.assert_applies(evaluable)
