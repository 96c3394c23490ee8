"""Built-in plugins, by the name used in the ``plugins`` setting."""

from api_deploy_agent.plugins.cors import CorsPlugin
from api_deploy_agent.plugins.lambda_plugin import LambdaPlugin

BUILTIN_PLUGINS = {
    LambdaPlugin.name: LambdaPlugin,
    CorsPlugin.name: CorsPlugin,
}
