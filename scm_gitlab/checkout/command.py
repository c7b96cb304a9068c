"""
Checkout 脚本生成（纯函数，不做任何 I/O）。

输出是一条用 ` && ` 串起来的 shell 命令，在 build sandbox 里执行：
1) 运行时环境协商（git wrapper、recursive / sparse 开关）
2) 选择 clone 地址（只读账号 / ssh / 环境变量里的 token / 匿名）
3) git 身份
4) 最终 checkout 目录
5) 子 pipeline：先 clone 上游 config 仓库
6) clone 主仓库并 reset 到目标 ref
7) MR：fetch MR head 并 merge 目标分支
8) submodule
9) cd 到 rootDir（必须在最后，目录只有 checkout 之后才存在）

注意：
- 凭证选择、shallow/sparse/recursive 都是**运行时**条件，生成时不做决定，
  同一份脚本要能在权限不同的 build agent 上执行
"""

from __future__ import annotations

from urllib.parse import quote as url_quote

from scm_gitlab.checkout.plan import CheckoutCommand
from scm_gitlab.checkout.plan import CheckoutPlan
from scm_gitlab.checkout.plan import ParentConfig
from scm_gitlab.checkout.shell import ShellScript
from scm_gitlab.checkout.shell import cd
from scm_gitlab.checkout.shell import echo
from scm_gitlab.checkout.shell import equals
from scm_gitlab.checkout.shell import export
from scm_gitlab.checkout.shell import git
from scm_gitlab.checkout.shell import git_quote
from scm_gitlab.checkout.shell import if_chain
from scm_gitlab.checkout.shell import if_else
from scm_gitlab.checkout.shell import if_then
from scm_gitlab.checkout.shell import is_set
from scm_gitlab.checkout.shell import is_unset
from scm_gitlab.checkout.shell import quote
from scm_gitlab.config import GitLabScmConfig

DEFAULT_SHALLOW_CLONE_DEPTH = 50
LOCAL_PR_BRANCH = "pr"
CONFIG_DIR = "$SD_ROOT_DIR/config"

GIT_WRAPPER_SELECTION = export(
    "SD_GIT_WRAPPER",
    "\"$(if [ $(uname) = 'Darwin' ]; then echo 'eval'; else echo 'sd-step exec core/git'; fi)\"",
)
RECURSIVE_OPTION = if_else(
    equals("GIT_RECURSIVE_CLONE", "false"),
    export("GIT_RECURSIVE_OPTION", '""'),
    export("GIT_RECURSIVE_OPTION", '"--recursive"'),
)
SPARSE_OPTION = if_else(
    is_set("GIT_SPARSE_CHECKOUT_PATH"),
    export("GIT_SPARSE_OPTION", '"--no-checkout"'),
    export("GIT_SPARSE_OPTION", '""'),
)
SHALLOW_DEPTH_OPTION = if_else(
    is_set("GIT_SHALLOW_CLONE_SINCE"),
    export("GIT_SHALLOW_CLONE_DEPTH_OPTION", "\"--shallow-since='$GIT_SHALLOW_CLONE_SINCE'\""),
    [
        if_then(is_unset("GIT_SHALLOW_CLONE_DEPTH"), export("GIT_SHALLOW_CLONE_DEPTH", str(DEFAULT_SHALLOW_CLONE_DEPTH))),
        export("GIT_SHALLOW_CLONE_DEPTH_OPTION", '"--depth=$GIT_SHALLOW_CLONE_DEPTH"'),
    ],
)
SHALLOW_BRANCH_OPTION = [
    export("GIT_SHALLOW_CLONE_BRANCH", '"--no-single-branch"'),
    if_then('[ "$GIT_SHALLOW_CLONE_SINGLE_BRANCH" = true ]', export("GIT_SHALLOW_CLONE_BRANCH", '""')),
]
SPARSE_CHECKOUT = if_then(
    is_set("GIT_SPARSE_CHECKOUT_PATH"),
    f'{git("sparse-checkout set $GIT_SPARSE_CHECKOUT_PATH")} && {git("checkout")}',
)
SUBMODULES = if_else(
    equals("GIT_RECURSIVE_CLONE", "false"),
    git("submodule init"),
    git("submodule update --init --recursive"),
)


def _with_credentials(url: str, username: str, token: str) -> str:
    scheme, rest = url.split("://", 1)
    return f"{scheme}://{username}:{token}@{rest}"


def select_remote_url(var: str, host: str, org: str, repo: str, config: GitLabScmConfig) -> str:
    """
    生成“选择 clone 地址”的片段，结果 export 到 `var`。

    优先级：只读账号（生成时已知）> SCM_CLONE_TYPE=ssh > SCM_USERNAME + SCM_ACCESS_TOKEN > 匿名 https
    """
    https_url = f"{config.gitlab_protocol}://{host}/{org}/{repo}"
    ssh_url = f"git@{host}:{org}/{repo}"

    read_only = config.read_only
    if read_only.enabled:
        if read_only.clone_type == "ssh":
            return export(var, ssh_url)
        credentials_url = _with_credentials(
            https_url,
            username=url_quote(read_only.username, safe=""),
            token=url_quote(read_only.access_token, safe=""),
        )
        return export(var, quote(credentials_url))

    return if_chain(
        [
            (equals("SCM_CLONE_TYPE", "ssh"), export(var, ssh_url)),
            (
                f"{is_set('SCM_USERNAME')} && {is_set('SCM_ACCESS_TOKEN')}",
                export(var, _with_credentials(https_url, username="$SCM_USERNAME", token="$SCM_ACCESS_TOKEN")),
            ),
        ],
        export(var, https_url),
    )


def clone(url_var: str, target_dir: str, branch: str, sparse: bool) -> str:
    """
    clone 片段：GIT_SHALLOW_CLONE=false 时完整 clone，否则 shallow clone。

    shallow 深度：GIT_SHALLOW_CLONE_SINCE > GIT_SHALLOW_CLONE_DEPTH > 默认 50；
    默认 `--no-single-branch`，GIT_SHALLOW_CLONE_SINGLE_BRANCH=true 时只拉单分支。
    """
    sparse_option = "$GIT_SPARSE_OPTION " if sparse else ""
    target = f"--quiet --progress --branch {git_quote(branch)} ${url_var} {target_dir}"
    full_clone = git(f"clone {sparse_option}$GIT_RECURSIVE_OPTION {target}")
    shallow_clone = git(
        f"clone {sparse_option}$GIT_RECURSIVE_OPTION $GIT_SHALLOW_CLONE_DEPTH_OPTION $GIT_SHALLOW_CLONE_BRANCH {target}"
    )
    return if_else(
        equals("GIT_SHALLOW_CLONE", "false"),
        full_clone,
        [SHALLOW_DEPTH_OPTION, *SHALLOW_BRANCH_OPTION, shallow_clone],
    )


def _preamble() -> list[str]:
    return [GIT_WRAPPER_SELECTION, echo("Exporting environment variables"), RECURSIVE_OPTION, SPARSE_OPTION]


def _identity(config: GitLabScmConfig) -> list[str]:
    return [
        echo("Setting user name and user email"),
        git(f"config --global user.name {git_quote(config.username)}"),
        git(f"config --global user.email {git_quote(config.email)}"),
    ]


def _checkout_dir() -> list[str]:
    # 默认 SD_SOURCE_DIR，sandbox 设置了 SD_CHECKOUT_DIR 时以它为准
    return [
        export("SD_CHECKOUT_DIR_FINAL", "$SD_SOURCE_DIR"),
        if_then(is_set("SD_CHECKOUT_DIR"), export("SD_CHECKOUT_DIR_FINAL", "$SD_CHECKOUT_DIR")),
    ]


def _parent_checkout(parent: ParentConfig, config: GitLabScmConfig) -> list[str]:
    return [
        select_remote_url("CONFIG_URL", host=parent.host, org=parent.org, repo=parent.repo, config=config),
        export("SD_CONFIG_DIR", CONFIG_DIR),
        echo(f"Cloning external config repo {parent.host}/{parent.org}/{parent.repo}"),
        clone("CONFIG_URL", target_dir="$SD_CONFIG_DIR", branch=parent.branch, sparse=False),
        git(f"-C $SD_CONFIG_DIR reset --hard {git_quote(parent.sha)} --"),
        echo(f"Reset external config repo to {parent.sha}"),
    ]


def _primary_checkout(plan: CheckoutPlan, checkout_ref: str) -> list[str]:
    branch = plan.checkout_branch
    return [
        echo(f"Cloning {plan.host}/{plan.org}/{plan.repo}, on branch {branch}"),
        clone("SCM_URL", target_dir="$SD_CHECKOUT_DIR_FINAL", branch=branch, sparse=True),
        "cd $SD_CHECKOUT_DIR_FINAL",
        SPARSE_CHECKOUT,
        git(f"reset --hard {git_quote(checkout_ref)} --"),
        echo(f"Reset to {checkout_ref}"),
    ]


def _pull_request_merge(plan: CheckoutPlan, pr_ref: str) -> list[str]:
    branch = plan.checkout_branch
    # fork 来的 MR 用 upstream/ 前缀，便于下游区分
    remote = "upstream" if plan.pr_source == "fork" else "origin"
    pr_branch_name = plan.pr_branch_name or LOCAL_PR_BRANCH
    return [
        echo(f"Fetching PR {pr_ref}"),
        git(f"fetch origin {git_quote(f'{pr_ref}:{LOCAL_PR_BRANCH}')}"),
        export("PR_BASE_BRANCH_NAME", quote(branch)),
        export("PR_BRANCH_NAME", quote(f"{remote}/{pr_branch_name}")),
        echo(f"Checking out the PR branch {pr_branch_name}"),
        git(f"checkout {LOCAL_PR_BRANCH}"),
        git(f"merge {git_quote(branch)}"),
        export("GIT_BRANCH", quote(f"origin/refs/{pr_ref}")),
    ]


def build_checkout_command(plan: CheckoutPlan, config: GitLabScmConfig) -> CheckoutCommand:
    """
    生成 checkout 命令。

    - MR build：先 reset 到目标分支，再 fetch + merge MR（不是直接 reset 到 MR head）
    - 非 MR build：reset 到 commit sha
    - 相同输入得到逐字节相同的输出
    """
    checkout_ref = plan.checkout_branch if plan.pr_ref else plan.sha

    script = (
        ShellScript()
        .extend(_preamble())
        .then(
            select_remote_url("SCM_URL", host=plan.host, org=plan.org, repo=plan.repo, config=config),
            export("GIT_URL", "$SCM_URL.git"),
            # 老版本 git 的 merge 不支持 --no-edit
            export("GIT_MERGE_AUTOEDIT", "no"),
        )
        .extend(_identity(config))
        .extend(_checkout_dir())
    )
    if plan.parent_config is not None:
        script = script.extend(_parent_checkout(plan.parent_config, config))
    script = script.extend(_primary_checkout(plan, checkout_ref))

    if plan.pr_ref:
        script = script.extend(_pull_request_merge(plan, plan.pr_ref))
    else:
        script = script.then(export("GIT_BRANCH", quote(f"origin/{plan.checkout_branch}")))

    script = script.then(SUBMODULES)
    if plan.root_dir:
        script = script.then(cd(plan.root_dir))

    return CheckoutCommand(command=script.render())
