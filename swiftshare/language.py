"""Language support primitives for SwiftShare status lines with Rich styling."""

from __future__ import annotations

from typing import Dict, Optional

from rich.text import Text

# Supported interface languages
LANGUAGES: Dict[str, str] = {
    "en": "English",
    "zh": "中文",
}

MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        "cli_description": "SwiftShare LAN file transfer",
        "cli_version_help": "show SwiftShare version and exit",
        "cli_version_output": "SwiftShare version {version}",
        "cli_debug_help": "log discovery and transfer internals",
        "cli_commands_title": "commands",
        "cli_send_help": "Wait for a peer to connect and send it a file",
        "cli_send_path_help": "Path to the file to send",
        "cli_receive_help": "Connect to a peer that is sending and download its file",
        "cli_receive_peer_help": "Peer instance name or IPv4 address (prompted when omitted)",
        "cli_receive_dir_help": "Directory to save the file into",
        "cli_wait_help": "Seconds to browse for peers",
        "cli_peers_help": "List SwiftShare peers on the local network",
        "cli_quiet_help": "Only print the final result",
        "ready": "Ready to transfer files",
        "menu_header": "=== SwiftShare ===",
        "menu_options": "1. List peers\n2. Send file\n3. Receive file\n4. Quit",
        "prompt_choice": "Select an option: ",
        "prompt_file_path": "Path of the file to send: ",
        "file_not_found": "File not found: {path}",
        "advertising": "Advertising as {name} on port {port}",
        "discovery_failed": "Error starting service discovery: {error}",
        "browsing": "Looking for peers for {seconds} seconds...",
        "no_peers": "No peers found.",
        "peer_entry": "{index}. {name} ({ip}:{port})",
        "peer_no_address": "{index}. {name} (no usable address)",
        "prompt_peer_choice": "Choose a peer [1-{count}]: ",
        "invalid_choice": "Invalid choice.",
        "peer_not_found": "No peer named {name} was found.",
        "send_preparing": "Preparing to send file: {name}",
        "send_listening": "Waiting for receiver to connect at {address}",
        "send_connected": "Receiver connected from {peer}",
        "send_progress": "Sending: {percent:.2f}% ({transferred:.2f} MB / {total:.2f} MB) | Speed: {rate:.2f} MB/s",
        "send_done": "File sent successfully: {name}",
        "receive_connecting": "Connecting to sender {address}...",
        "receive_metadata": "Receiving {name} ({size})",
        "receive_progress": "Receiving: {percent:.2f}% ({transferred:.2f} MB / {total:.2f} MB) | Speed: {rate:.2f} MB/s",
        "receive_done": "File received: {path}",
        "error_file": "Error accessing file: {error}",
        "error_connection": "Error connecting: {error}",
        "error_address_in_use": "Error creating listener: {error}",
        "error_metadata": "Error reading metadata: {error}",
        "error_transfer": "Error during file transfer: {error}",
        "error_integrity": "Error verifying file: {error}",
        "error_cancelled": "Error: transfer cancelled",
        "error_unexpected": "Error: {error}",
        "goodbye": "Goodbye!",
    },
    "zh": {
        "cli_description": "SwiftShare 局域网文件传输",
        "cli_version_help": "显示 SwiftShare 版本并退出",
        "cli_version_output": "SwiftShare 版本 {version}",
        "cli_debug_help": "输出发现与传输的调试日志",
        "cli_commands_title": "命令",
        "cli_send_help": "等待对端连接并发送文件",
        "cli_send_path_help": "要发送的文件路径",
        "cli_receive_help": "连接正在发送的对端并下载文件",
        "cli_receive_peer_help": "对端实例名或 IPv4 地址（省略时提示选择）",
        "cli_receive_dir_help": "文件保存目录",
        "cli_wait_help": "搜索对端的秒数",
        "cli_peers_help": "列出局域网内的 SwiftShare 设备",
        "cli_quiet_help": "只输出最终结果",
        "ready": "准备就绪，可以传输文件",
        "menu_header": "=== SwiftShare ===",
        "menu_options": "1. 查看设备\n2. 发送文件\n3. 接收文件\n4. 退出",
        "prompt_choice": "请选择操作：",
        "prompt_file_path": "要发送的文件路径：",
        "file_not_found": "找不到文件：{path}",
        "advertising": "正在以 {name} 广播，端口 {port}",
        "discovery_failed": "启动服务发现失败：{error}",
        "browsing": "正在搜索对端（{seconds} 秒）……",
        "no_peers": "未发现任何设备。",
        "peer_entry": "{index}. {name}（{ip}:{port}）",
        "peer_no_address": "{index}. {name}（无可用地址）",
        "prompt_peer_choice": "请选择设备 [1-{count}]：",
        "invalid_choice": "无效的选择。",
        "peer_not_found": "未找到名为 {name} 的设备。",
        "send_preparing": "准备发送文件：{name}",
        "send_listening": "等待接收方连接 {address}",
        "send_connected": "接收方已连接：{peer}",
        "send_progress": "发送中：{percent:.2f}%（{transferred:.2f} MB / {total:.2f} MB）| 速度：{rate:.2f} MB/s",
        "send_done": "文件发送成功：{name}",
        "receive_connecting": "正在连接发送方 {address}……",
        "receive_metadata": "正在接收 {name}（{size}）",
        "receive_progress": "接收中：{percent:.2f}%（{transferred:.2f} MB / {total:.2f} MB）| 速度：{rate:.2f} MB/s",
        "receive_done": "文件已接收：{path}",
        "error_file": "文件访问错误：{error}",
        "error_connection": "连接错误：{error}",
        "error_address_in_use": "创建监听失败：{error}",
        "error_metadata": "读取元数据失败：{error}",
        "error_transfer": "传输过程中出错：{error}",
        "error_integrity": "文件校验失败：{error}",
        "error_cancelled": "错误：传输已取消",
        "error_unexpected": "错误：{error}",
        "goodbye": "再见！",
    },
}


def get_message(key: str, language: str, **kwargs: object) -> str:
    """
    Retrieve a formatted message for the requested language.
    Falls back to English when the message or language is missing.
    """

    lang_messages = MESSAGES.get(language, MESSAGES["en"])
    template = lang_messages.get(key, MESSAGES["en"].get(key, key))
    return template.format(**kwargs)


TONE_STYLES: Dict[str, str] = {
    "heading": "bold bright_cyan",
    "info": "bright_black",
    "success": "bold green",
    "warning": "bold yellow",
    "error": "bold red",
    "prompt": "cyan",
}


MESSAGE_TONES: Dict[str, str] = {
    "menu_header": "heading",
    "prompt_choice": "prompt",
    "prompt_file_path": "prompt",
    "file_not_found": "warning",
    "advertising": "info",
    "browsing": "info",
    "discovery_failed": "warning",
    "no_peers": "warning",
    "peer_not_found": "warning",
    "invalid_choice": "warning",
    "prompt_peer_choice": "prompt",
    "send_done": "success",
    "receive_done": "success",
    "error_file": "error",
    "error_connection": "error",
    "error_address_in_use": "error",
    "error_metadata": "error",
    "error_transfer": "error",
    "error_integrity": "error",
    "error_cancelled": "error",
    "error_unexpected": "error",
}


def render_message(
    key: str,
    language: str,
    *,
    tone: Optional[str] = None,
    **kwargs: object,
) -> Text:
    """Return a Rich Text object for the requested message with consistent styling."""

    message = get_message(key, language, **kwargs)
    text = Text(message)
    resolved_tone = tone or MESSAGE_TONES.get(key)
    if resolved_tone:
        style = TONE_STYLES.get(resolved_tone, resolved_tone)
        if style:
            text.stylize(style)
    return text
