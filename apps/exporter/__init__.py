"""
Exporter App - Pending Orders to SFTP

Responsibilities:
- Run the orders export procedure (reads pending orders and marks them exported)
- Stage the XML document as [TEST-]YYYYMMDD-HHMMSS.xml in a temp directory
- Upload the file to the configured SFTP directory
- Always remove the local file, whatever happened
- Report failures to the console and, when configured, by email

Output:
- <uploadPath>/[TEST-]YYYYMMDD-HHMMSS.xml on the SFTP server
"""
